# tests/conftest.py
import os
import sys

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

# Ensure placeholder secrets do not trigger validators during tests
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("DEEPSEEK_API_KEY", "test-key")
os.environ.setdefault("LLM_PROVIDER", "openai")

from models.project_models import ProjectData  # noqa: E402


@pytest.fixture
def acme_project() -> ProjectData:
    return ProjectData(name="Acme Portal", methodology="agile")


@pytest.fixture
def prince2_project() -> ProjectData:
    return ProjectData.model_validate(
        {
            "name": "Ledger Migration",
            "methodology": "prince2",
            "vision": "Move the general ledger to the cloud. Contact: Jane Smith",
            "businessCase": "Cut hosting costs; questions to jane.smith@example.com",
            "sector": "Finance",
            "budget": "£250k",
            "timeline": "9 months",
            "stakeholders": [
                {"name": "Jane Smith", "role": "Sponsor", "email": "jane.smith@example.com"},
                {"name": "Raj Patel", "role": "Finance Lead"},
            ],
            "prince2Stakeholders": {
                "executive": {"name": "Olivia Brown", "title": "Chief Financial Officer"},
                "seniorUser": {"name": "Tom Green"},
                "seniorSupplier": {"name": "Ana Ruiz", "title": "Vendor Director"},
            },
        }
    )
