import copy
import threading


class SharedState:
    """
    Process-wide holder for the runtime the API routes operate on.

    main.py attaches the RuntimeContext before uvicorn starts; routes read
    the session and database through this object. The raw config dict is
    guarded by a lock because the settings routes replace it.
    """
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    inst = super(SharedState, cls).__new__(cls)
                    inst.runtime = None
                    inst.config_path = None
                    inst._config = None
                    inst._config_lock = threading.Lock()
                    cls._instance = inst
        return cls._instance

    @property
    def session(self):
        return self.runtime.session if self.runtime is not None else None

    @property
    def database(self):
        return self.runtime.db if self.runtime is not None else None

    def set_runtime(self, ctx, config_path=None):
        """Attach a RuntimeContext built by runtime.context.build_runtime()."""
        self.runtime = ctx
        self.config_path = config_path
        self.update_config(ctx.raw_config)

    def clear(self):
        self.runtime = None

    def get_config_copy(self):
        with self._config_lock:
            return copy.deepcopy(self._config) if self._config is not None else None

    def update_config(self, new_config):
        with self._config_lock:
            self._config = new_config


# Global instance
state = SharedState()
