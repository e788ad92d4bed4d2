"""Checkup engine exceptions.

None of these ever reach the user: the engine catches them at the turn
boundary and answers with a templated message instead.
"""


class CheckupError(Exception):
    """Base class for checkup engine errors."""


class CollaboratorError(CheckupError):
    """An external collaborator (LLM, persistence, decomposer) failed."""

    def __init__(self, collaborator: str, message: str = ""):
        self.collaborator = collaborator
        super().__init__(f"{collaborator}: {message}" if message else collaborator)


class NarrationError(CollaboratorError):
    """The narrator could not produce text for a scenario."""

    def __init__(self, scenario: str, message: str = ""):
        self.scenario = scenario
        super().__init__("narrator", f"[{scenario}] {message}".strip())
