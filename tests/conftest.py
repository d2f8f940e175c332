from __future__ import annotations

import pytest

from repolens.models import RepositorySnapshot


@pytest.fixture
def snapshot() -> RepositorySnapshot:
    """A small but fully populated repository snapshot."""
    return RepositorySnapshot(
        name="widget-service",
        description="Widget inventory API",
        stars=42,
        forks=7,
        open_issues=3,
        languages={"Python": 7240, "Shell": 2760},
        topics=("api", "inventory"),
        license_name="MIT License",
        readme_excerpt="# widget-service\n\nServes widgets.",
        tree_excerpt="📁 app\n📄 app/main.py\n📄 pyproject.toml",
    )
