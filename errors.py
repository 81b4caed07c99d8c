class ConfigurationError(ValueError):
  """Arrays or options that cannot form a valid reconstruction."""


class ResourceError(OSError):
  """An input or output array could not be loaded or created."""
