"""ReVeda backend: OTP authentication, token sessions and doctor approval."""

__version__ = "1.0.0"
