"""
Errors raised while building the physical topology, the application graph
and the module mapping. All of them are fatal for a run.
"""


class ModelError(ValueError):
    """Base class: carries the offending identifier in ``subject``"""

    def __init__(self, message, subject=None):
        super().__init__(message)
        self.subject = subject


class TopologyStructureError(ModelError):
    """Unresolved parent, cycle, duplicate id/name or dangling gateway"""


class AppReferenceError(ModelError):
    """Edge, selectivity or loop entry naming something undeclared"""


class MappingError(ModelError):
    """Mapping constraint naming an undeclared module or device"""


class ConfigError(ModelError):
    """Malformed description or out-of-range value"""


class DuplicateDeclarationError(AppReferenceError):
    """Module or selectivity rule declared twice"""


class FrozenModelError(ModelError):
    """Change attempted on a model already handed to the engine"""
