class FlowError(Exception):
    """Base class for errors a flow lets escape to its caller."""


class ImageGenerationError(FlowError):
    """The image model returned no usable image."""


class InvalidGeneratedFileError(FlowError):
    """A generated file entry is missing a string ``fileName`` or ``code``."""


class ToolLoopExceededError(FlowError):
    """The model kept requesting tools past the allowed number of rounds."""
