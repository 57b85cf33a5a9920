# lidar2depth/registry.py
import importlib

REGISTRY = {"proj": {}, "rast": {}, "enc": {}}

# modules that register the built-in stages on import
_BUILTINS = (
    "lidar2depth.projections.pinhole",
    "lidar2depth.encoders.fixed_point",
    "lidar2depth.rasterizers.zbuffer",
)

def register(kind, name):
    def deco(cls):
        REGISTRY[kind][name] = cls
        return cls
    return deco

def _load_builtins():
    for mod in _BUILTINS:
        importlib.import_module(mod)

def build(kind, name, **kwargs):
    _load_builtins()
    if kind not in REGISTRY:
        raise KeyError(f"unknown stage kind {kind!r} (expected one of {sorted(REGISTRY)})")
    if name not in REGISTRY[kind]:
        raise KeyError(f"unknown {kind} {name!r} (available: {sorted(REGISTRY[kind])})")
    return REGISTRY[kind][name](**kwargs)

def available(kind):
    _load_builtins()
    return sorted(REGISTRY[kind])
