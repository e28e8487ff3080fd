"""
Test Fixtures

Common test classes used across test modules
"""

from typing import Dict, List, Optional

from kotbeans import BeanNameAware, DisposableBean, FactoryBean, InitializingBean


class Gadget:
    """Bean without dependencies"""

    def __init__(self):
        self.name = "gadget"


class SpecialGadget(Gadget):
    """Gadget subclass for type matching"""
    pass


class Widget:
    """Bean with a settable dependency and a literal property"""

    gadget: Optional[Gadget] = None
    size: int = 0

    def __init__(self):
        self.label = "widget"


class Assembly:
    """Bean with constructor dependencies"""

    def __init__(self, gadget: Gadget, widget: Widget):
        self.gadget = gadget
        self.widget = widget


class Sized:
    """Bean with several constructors of different arity"""

    def __init__(self, name: str, size: int = 1):
        self.name = name
        self.size = size


class Endpoint:
    """Bean with literal constructor parameters"""

    def __init__(self, host: str, port: int, secure: bool):
        self.host = host
        self.port = port
        self.secure = secure


class Counter:
    """Counts instantiations across all instances"""

    created = 0

    def __init__(self):
        Counter.created += 1
        self.number = Counter.created


# ----------------------------------------------------------------------
# Circular references
# ----------------------------------------------------------------------

class Chicken:
    """Property cycle with Egg"""

    egg: Optional["Egg"] = None


class Egg:
    """Property cycle with Chicken"""

    chicken: Optional[Chicken] = None


class Left:
    """Constructor cycle with Right"""

    def __init__(self, right: "Right"):
        self.right = right


class Right:
    """Constructor cycle with Left"""

    def __init__(self, left: Left):
        self.left = left


# ----------------------------------------------------------------------
# Collections
# ----------------------------------------------------------------------

class Plugin:
    """Base class of autowired collection elements"""
    pass


class AlphaPlugin(Plugin):
    pass


class BetaPlugin(Plugin):
    pass


class PluginHost:
    """Receives every plugin through its constructor"""

    def __init__(self, plugins: List[Plugin], by_name: Dict[str, Plugin],
                 fallback: Optional[Gadget] = None):
        self.plugins = plugins
        self.by_name = by_name
        self.fallback = fallback


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

class Recorder:
    """Collects lifecycle events in order"""

    def __init__(self):
        self.events: List[str] = []

    def record(self, event: str) -> None:
        self.events.append(event)


class LifecycleBean(BeanNameAware, InitializingBean, DisposableBean):
    """Records every callback it receives into its ``recorder``"""

    recorder: Optional[Recorder] = None

    def __init__(self):
        self.bean_name = None

    def set_bean_name(self, name: str) -> None:
        self.bean_name = name

    def after_properties_set(self) -> None:
        self.recorder.record(f"{self.bean_name}:after_properties_set")

    def custom_init(self) -> None:
        self.recorder.record(f"{self.bean_name}:custom_init")

    def destroy(self) -> None:
        self.recorder.record(f"{self.bean_name}:destroy")

    def custom_destroy(self) -> None:
        self.recorder.record(f"{self.bean_name}:custom_destroy")


class Resource:
    """Plain bean with an explicit stop method"""

    recorder: Optional[Recorder] = None
    dependency: Optional["Resource"] = None

    def __init__(self):
        self.name = None

    def stop(self) -> None:
        self.recorder.record(f"stop:{self.name}")


class ClosingResource:
    """Context manager with close(), closed automatically"""

    def __init__(self):
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        self.closed = True


# ----------------------------------------------------------------------
# Factory beans
# ----------------------------------------------------------------------

class GadgetFactoryBean(FactoryBean):
    """Factory bean producing Gadgets, counting calls"""

    def __init__(self, singleton: bool = True):
        self.singleton = singleton
        self.calls = 0

    def get_object(self):
        self.calls += 1
        return Gadget()

    def get_object_type(self):
        return Gadget

    def is_singleton(self) -> bool:
        return self.singleton


class NoneFactoryBean(FactoryBean):
    """Factory bean whose product is None"""

    def get_object(self):
        return None

    def get_object_type(self):
        return None


class Connections:
    """Holder of instance factory methods"""

    def __init__(self):
        self.opened = 0

    def open(self, url: str) -> "Connection":
        self.opened += 1
        return Connection(url)


class Connection:
    """Product of factory methods"""

    def __init__(self, url: str):
        self.url = url

    @classmethod
    def create(cls, url: str = "memory://") -> "Connection":
        return cls(url)

    @staticmethod
    def nothing() -> None:
        return None
