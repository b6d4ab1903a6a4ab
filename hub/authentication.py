"""
Token authentication for the REST API and JWT for the front-end.

DRF's ``TokenAuthentication`` is subclassed only to give settings a
stable import path; simplejwt access tokens are accepted as well.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'
