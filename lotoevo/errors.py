from typing import Dict


# Custom exceptions
class EngineError(Exception): pass
class EngineConfigError(EngineError): pass
class InvalidInput(EngineError, ValueError): pass
class ModelInferenceFailure(EngineError): pass


class PartialBatchFailure(EngineError):
    """One or more players failed inside an otherwise completed batch."""

    def __init__(self, failures: Dict[int, str]):
        self.failures = dict(failures)
        ids = ", ".join(str(pid) for pid in sorted(self.failures))
        super().__init__(f"{len(self.failures)} player(s) failed: {ids}")
