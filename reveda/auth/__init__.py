"""
Authentication module for the ReVeda backend.

This module provides:
- Passwordless signup and login with one-time passcodes (email or SMS)
- Access/refresh JWT pairs signed with separate secrets
- Google sign-in
- The access gate for protected routes (token + live verification check)
"""
