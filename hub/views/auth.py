"""
Login and logout.

Both issue audit records: a successful sign-in and a sign-out are
queued, a failed sign-in is written on the critical path so that
brute force attempts are persisted before the response goes out.
"""
from __future__ import annotations

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from hub.middleware import client_ip
from hub.serializers.auth import LoginSerializer
from hub.services.audit_actions import log_failed_login, log_login, log_logout


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']
    password = s.validated_data['password']

    ip = client_ip(request)
    ua = request.META.get('HTTP_USER_AGENT')

    user = authenticate(request, username=username, password=password)
    if not user:
        log_failed_login(username[:64], 'unknown', username, 'Invalid credentials',
                         ip_address=ip, user_agent=ua, critical=True)
        return Response({'ok': False, 'error': {'code': 'invalid_credentials',
                                                'message': 'Invalid username or password'}}, status=400)

    log_login(str(user.pk), user.role, user.display_name, ip_address=ip, user_agent=ua)

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'user': {
            'id': user.pk,
            'username': user.username,
            'name': user.display_name,
            'role': user.role,
            'facilityId': user.facility_id,
        },
    })


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the given refresh token, or every outstanding one of the user."""
    user = request.user
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            return Response({'ok': False, 'error': {'code': 'invalid_token', 'message': str(e)}}, status=400)
    else:
        for token in OutstandingToken.objects.filter(user=user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)

    log_logout(str(user.pk), user.role, user.display_name,
               ip_address=client_ip(request), user_agent=request.META.get('HTTP_USER_AGENT'))
    return Response({'ok': True, 'blacklisted': count})
