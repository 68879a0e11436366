"""Shared pytest fixtures."""

import pytest

from spacenote_keys.core.modules.field.models import FieldType, SpaceField
from spacenote_keys.core.modules.space.models import Space
from spacenote_keys.core.modules.user.models import User


@pytest.fixture
def mock_space():
    """Create a mock space for testing."""
    return Space(
        slug="test-space",
        title="Test Space",
        description="Test space for unit tests",
        fields=[],
    )


@pytest.fixture
def mock_user():
    """Create a mock user for testing."""
    return User(
        username="testuser",
        password_hash="$2b$12$hashed_password_here",
    )


@pytest.fixture
def reference_space():
    """Space with one field of each kind that can embed, or look like, a natural key."""
    return Space(
        slug="proj",
        title="Project",
        fields=[
            SpaceField(id="title", type=FieldType.STRING),
            SpaceField(id="assigned_to", type=FieldType.USER),
            SpaceField(id="reviewer", type=FieldType.USER, default="john"),
            SpaceField(id="thumbnail", type=FieldType.ATTACHMENT),
            SpaceField(id="photo", type=FieldType.IMAGE),
        ],
    )
