# models/project_models.py
"""Project facts supplied by the wizard, before and after sanitization."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Methodology(str, Enum):
    """Delivery methodology that selects document sets and prompt templates."""

    AGILE = "agile"
    PRINCE2 = "prince2"
    HYBRID = "hybrid"


class _WizardModel(BaseModel):
    """Accepts both snake_case and the camelCase keys the web form sends."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class Stakeholder(_WizardModel):
    name: str = ""
    role: str = ""
    email: str = ""
    influence: str = ""
    interest: str = ""


class Prince2Role(_WizardModel):
    name: str = ""
    email: str = ""
    title: str = ""


class Prince2Board(_WizardModel):
    """The PRINCE2 project board triple."""

    executive: Prince2Role = Prince2Role()
    senior_user: Prince2Role = Prince2Role()
    senior_supplier: Prince2Role = Prince2Role()


class Agilometer(_WizardModel):
    """Hybrid methodology sliders, each 0-100."""

    flexibility: int = Field(50, ge=0, le=100)
    team_experience: int = Field(50, ge=0, le=100)
    risk_tolerance: int = Field(50, ge=0, le=100)
    documentation: int = Field(50, ge=0, le=100)
    governance: int = Field(50, ge=0, le=100)


class ProjectData(_WizardModel):
    """Immutable input to a single generation run."""

    name: str = Field(..., min_length=1)
    methodology: Methodology
    vision: str = ""
    business_case: str = ""
    description: str = ""
    company_website: str = ""
    sector: str = ""
    budget: str = ""
    timeline: str = ""
    start_date: str = ""
    end_date: str = ""
    stakeholders: tuple[Stakeholder, ...] = ()
    agilometer: Agilometer | None = None
    prince2_stakeholders: Prince2Board | None = None


class SanitizedStakeholder(_WizardModel):
    placeholder: str
    role: str
    influence: str = ""
    interest: str = ""


class SanitizedProjectData(_WizardModel):
    """What the generator and the LLM are allowed to see."""

    project_name: str
    methodology: Methodology
    vision: str = ""
    business_case: str = ""
    description: str = ""
    company_website: str = ""
    sector: str = ""
    budget: str = ""
    timeline: str = ""
    start_date: str = ""
    end_date: str = ""
    stakeholders: tuple[SanitizedStakeholder, ...] = ()
    # role title -> placeholder, e.g. {"Executive": "[EXECUTIVE]"}
    prince2_roles: dict[str, str] = Field(default_factory=dict)
    agilometer: Agilometer | None = None
