"""
Native extension loading and dispatch.

Extensions are shared libraries listed in the `extensions` section of the settings.
Each one must export the FazAI module ABI:

    int  fazai_mod_init(void);
    int  fazai_mod_exec(const char *command, void *buffer, int buffer_size);
    void fazai_mod_cleanup(void);

A library that is missing a symbol, cannot be opened, or returns non-zero from
`fazai_mod_init` is logged and skipped. The loaded set is published as a read-only
mapping; `reload` builds a complete new set, swaps it in, and only then cleans up
the modules of the previous set.
"""
import ctypes
import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional

from config.settings import ExtensionDescriptor
from shared.errors import ExtensionError

logger = logging.getLogger(__name__)

INIT_SYMBOL = "fazai_mod_init"
EXEC_SYMBOL = "fazai_mod_exec"
CLEANUP_SYMBOL = "fazai_mod_cleanup"
DEFAULT_BUFFER_SIZE = 4096


@dataclass(frozen=True)
class ExtensionOutput:
    returncode: int
    output: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class NativeExtension:
    """
    One initialized shared library.

    Use `NativeExtension.load` rather than the constructor; it validates the ABI and
    runs the init function.
    """

    def __init__(self, name: str, path: str, library):
        self.name = name
        self.path = path
        self._library = library
        self._exec = getattr(library, EXEC_SYMBOL)
        self._cleanup = getattr(library, CLEANUP_SYMBOL)
        self._closed = False

    @classmethod
    def load(cls, descriptor: ExtensionDescriptor, loader: Callable = ctypes.CDLL) -> "NativeExtension":
        """
        Open, validate and initialize a library.

        Args:
            descriptor (ExtensionDescriptor): Name and path from the settings.
            loader (Callable): Opens the library; `ctypes.CDLL` by default.

        Returns:
            NativeExtension: Ready for `execute`.

        Raises:
            ExtensionError: The library cannot be opened, lacks an ABI symbol, or its
                init function returned non-zero.
        """
        try:
            library = loader(descriptor.path)
        except OSError as exc:
            raise ExtensionError(f"Cannot open extension {descriptor.name} at {descriptor.path}: {exc}") from exc

        missing = [symbol for symbol in (INIT_SYMBOL, EXEC_SYMBOL, CLEANUP_SYMBOL) if not hasattr(library, symbol)]
        if missing:
            raise ExtensionError(f"Extension {descriptor.name} does not export: {', '.join(missing)}")

        init = getattr(library, INIT_SYMBOL)
        init.argtypes = []
        init.restype = ctypes.c_int
        execute = getattr(library, EXEC_SYMBOL)
        execute.argtypes = [ctypes.c_char_p, ctypes.c_void_p, ctypes.c_int]
        execute.restype = ctypes.c_int
        cleanup = getattr(library, CLEANUP_SYMBOL)
        cleanup.argtypes = []
        cleanup.restype = None

        code = init()
        if code != 0:
            raise ExtensionError(f"Extension {descriptor.name} failed to initialize: code {code}")

        logger.info("Native extension loaded: %s (%s)", descriptor.name, descriptor.path)
        return cls(descriptor.name, descriptor.path, library)

    def execute(self, command: str, payload: bytes = b"", buffer_size: int = DEFAULT_BUFFER_SIZE) -> ExtensionOutput:
        """
        Call `fazai_mod_exec` with `command` and an in/out buffer.

        The buffer is pre-filled with `payload`; whatever NUL-terminated text the
        module leaves in it is returned as `output`.
        """
        if self._closed:
            raise ExtensionError(f"Extension {self.name} has been unloaded")
        size = max(buffer_size, len(payload) + 1)
        buffer = ctypes.create_string_buffer(payload, size)
        code = self._exec(command.encode("utf-8"), ctypes.cast(buffer, ctypes.c_void_p), size)
        return ExtensionOutput(returncode=int(code), output=buffer.value.decode("utf-8", errors="replace"))

    def cleanup(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cleanup()
        logger.info("Native extension cleaned up: %s", self.name)


class ExtensionManager:
    """
    Owns the registry of loaded extensions.

    Readers get the current mapping without locking; the lock only serializes
    writers (reload and shutdown).
    """

    def __init__(self, loader: Callable = ctypes.CDLL):
        self._loader = loader
        self._registry: Mapping[str, NativeExtension] = MappingProxyType({})
        self._lock = threading.Lock()

    @property
    def registry(self) -> Mapping[str, NativeExtension]:
        return self._registry

    def names(self) -> List[str]:
        return sorted(self._registry)

    def get(self, name: str) -> Optional[NativeExtension]:
        return self._registry.get(name)

    def reload(self, descriptors: Iterable[ExtensionDescriptor]) -> List[str]:
        """Load every descriptor into a fresh registry, swap it in, then clean up the old one."""
        fresh = self._load_all(descriptors)
        with self._lock:
            previous, self._registry = self._registry, fresh
        self._cleanup_all(previous)
        logger.info("Extension registry now holds %d module(s)", len(fresh))
        return self.names()

    def shutdown(self) -> None:
        with self._lock:
            previous, self._registry = self._registry, MappingProxyType({})
        self._cleanup_all(previous)

    def execute(self, name: str, command: str, payload: bytes = b"") -> ExtensionOutput:
        extension = self.get(name)
        if extension is None:
            raise KeyError(name)
        logger.info("Executing extension %s", name)
        return extension.execute(command, payload)

    def _load_all(self, descriptors: Iterable[ExtensionDescriptor]) -> Mapping[str, NativeExtension]:
        loaded = {}
        for descriptor in descriptors:
            try:
                loaded[descriptor.name] = NativeExtension.load(descriptor, self._loader)
            except ExtensionError as exc:
                logger.error("Skipping extension %s: %s", descriptor.name, exc)
        return MappingProxyType(loaded)

    @staticmethod
    def _cleanup_all(registry: Mapping[str, NativeExtension]) -> None:
        for name, extension in registry.items():
            try:
                extension.cleanup()
            except OSError as exc:
                logger.error("Error cleaning up extension %s: %s", name, exc)


# Shared instance used by the application lifespan and the admin endpoints
extension_manager = ExtensionManager()
