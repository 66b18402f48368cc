import importlib.util
import warnings

if importlib.util.find_spec("hypothesis") is None:
    warnings.warn("hypothesis not installed, strategies are unavailable", stacklevel=2)
