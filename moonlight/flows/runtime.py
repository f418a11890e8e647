from __future__ import annotations

from dataclasses import dataclass, field

from moonlight.config import Config, SafetySettings
from moonlight.llms.agent import Agent
from moonlight.llms.images import ImageModel


@dataclass
class FlowRuntime:
    """External collaborators shared by the flows."""

    agent: Agent
    image_model: ImageModel
    config: Config = field(default_factory=Config)

    @property
    def safety(self) -> SafetySettings:
        return self.config.safety_settings()
