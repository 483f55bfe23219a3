"""Factory Boy definition for :class:`authcore.models.user.User`."""

from __future__ import annotations

import factory

from authcore.models.enums import UserRole
from authcore.models.user import User
from tests.factories import BaseFactory, SQLAlchemySession

DEFAULT_PASSWORD = "Passw0rd!"


class UserFactory(BaseFactory):
    """
    Build persisted :class:`User` instances.

    Notes
    -----
    - Email is confirmed by default so login flows work out of the box; pass
      ``email_confirmed=False`` for the registration path.
    - Pass ``password="..."`` to choose the password (hashed by the model).
    """

    class Meta:
        model = User

    id = None  # let autoincrement handle it
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")
    role = UserRole.PATIENT
    email_confirmed = True
    password_hash = factory.LazyFunction(lambda: "")  # set via postgen

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        """Set password using model setter (ensures hashing)."""
        obj.password = extracted or DEFAULT_PASSWORD
        if create:
            SQLAlchemySession.get().commit()
