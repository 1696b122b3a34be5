from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token

from libtrack.errors import ConflictError, ValidationError
from libtrack.models.user import User
from libtrack.repositories.user_repo import UserRepo


class AuthService:
    @staticmethod
    def register(first_name: str, last_name: str, email: str, password: str,
                 position: str | None = None, role: str = "user"):
        if UserRepo.get_by_email(email):
            raise ConflictError("Email is already registered")

        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=generate_password_hash(password),
            position=position or None,
            role=role,
        )
        UserRepo.create(user)
        return user

    @staticmethod
    def login(email: str, password: str):
        user = UserRepo.get_by_email(email)
        if not user or not check_password_hash(user.password_hash, password):
            raise ValidationError("Invalid email or password", status_code=401)

        token = create_access_token(
            identity=str(user.user_id),
            additional_claims={"role": user.role, "email": user.email},
        )
        return token, user
