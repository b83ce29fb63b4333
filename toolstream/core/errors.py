# Error taxonomy shared by the registry, the executors and the orchestrator.
# Date: 2025-06-14
# Version: 0.1.0


class ToolError(RuntimeError):
    """
    Raised by a tool executor when its upstream provider fails or returns
    nothing usable. The registry turns it into a structured error result that
    is fed back to the model.
    """


class InfrastructureError(RuntimeError):
    """Turn-fatal failure of the infrastructure the core runs on."""


class SandboxProvisioningError(InfrastructureError):
    """The code sandbox could not be created or stopped responding."""


class ArtifactStorageError(InfrastructureError):
    """Object storage rejected or failed an artifact upload."""


class GenerationError(InfrastructureError):
    """The generation engine (LLM provider) failed mid-turn."""


class InvalidStateTransition(RuntimeError):
    """A ToolInvocation was moved out of a state it cannot leave."""
