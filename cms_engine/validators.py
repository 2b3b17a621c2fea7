"""
Password validation for AUTH_PASSWORD_VALIDATORS.

    AUTH_PASSWORD_VALIDATORS = [
        {"NAME": "cms_engine.validators.CharacterClassPasswordValidator"},
    ]
"""
import re

from django.core.exceptions import ValidationError

from .conf import cms_settings

SPECIAL_RE = re.compile(r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]""")


class CharacterClassPasswordValidator:
    """
    Require a minimum length and a mix of character classes.

    Requirements come from the validator OPTIONS, then the
    password_requirements global setting, then PASSWORD_REQUIREMENTS.
    """

    def __init__(self, **options):
        self.options = options

    def get_requirements(self):
        from .models import GlobalSetting

        requirements = dict(cms_settings.PASSWORD_REQUIREMENTS)
        stored = GlobalSetting.get_value("password_requirements")
        if isinstance(stored, dict):
            requirements.update(stored)
        requirements.update(self.options)
        return requirements

    def validate(self, password, user=None):
        requirements = self.get_requirements()
        errors = []

        min_length = int(requirements.get("min_length", 8))
        if len(password) < min_length:
            errors.append(ValidationError(
                f"Password must be at least {min_length} characters.",
                code="password_too_short",
            ))
        if requirements.get("require_uppercase") and not re.search(r"[A-Z]", password):
            errors.append(ValidationError(
                "Password must contain at least one uppercase letter.",
                code="password_no_upper",
            ))
        if requirements.get("require_lowercase") and not re.search(r"[a-z]", password):
            errors.append(ValidationError(
                "Password must contain at least one lowercase letter.",
                code="password_no_lower",
            ))
        if requirements.get("require_numbers") and not re.search(r"[0-9]", password):
            errors.append(ValidationError(
                "Password must contain at least one number.",
                code="password_no_number",
            ))
        if requirements.get("require_special") and not SPECIAL_RE.search(password):
            errors.append(ValidationError(
                "Password must contain at least one special character (!@#$%^&*, etc.).",
                code="password_no_special",
            ))

        if errors:
            raise ValidationError(errors)

    def requirement_texts(self):
        requirements = self.get_requirements()
        texts = [f"At least {requirements.get('min_length', 8)} characters"]
        if requirements.get("require_uppercase"):
            texts.append("One uppercase letter")
        if requirements.get("require_lowercase"):
            texts.append("One lowercase letter")
        if requirements.get("require_numbers"):
            texts.append("One number")
        if requirements.get("require_special"):
            texts.append("One special character")
        return texts

    def get_help_text(self):
        return "Your password must contain: " + ", ".join(self.requirement_texts()).lower() + "."
