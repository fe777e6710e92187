class SandboxError(RuntimeError):
    """Base class for failures of the sandboxed runtime or its host glue."""


class SandboxStartupError(SandboxError):
    """The runtime could not be loaded or the sandbox could not be prepared."""


class MountError(SandboxError):
    """A host directory could not be bound into the sandbox filesystem."""


class ScriptError(SandboxError):
    """A script could not be executed or produced an unusable response."""
