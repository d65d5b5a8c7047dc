import logging

import jwt
from django.conf import settings
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.authentication import get_authorization_header
from rest_framework.decorators import api_view, authentication_classes
from rest_framework.response import Response

from accounts.models import Account
from accounts.serializers import AccountSerializer, SignupSerializer, LoginSerializer
from accounts.tokens import issue_token, decode_token

logger = logging.getLogger(__name__)

TOKEN_COOKIE = 'token'


def _token_from_request(request):
    """Bearer header first, then the login cookie, then a ``token`` body field."""
    auth = get_authorization_header(request).split()
    if len(auth) == 2 and auth[0].lower() == b'bearer':
        return auth[1].decode()
    if request.COOKIES.get(TOKEN_COOKIE):
        return request.COOKIES[TOKEN_COOKIE]
    if hasattr(request.data, 'get'):
        return request.data.get('token')
    return None


@swagger_auto_schema(method='post', request_body=SignupSerializer, responses={201: AccountSerializer}, tags=['Auth'])
@api_view(['POST'])
@authentication_classes([])
def signup(request):
    serializer = SignupSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Invalid signup data', 'details': serializer.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    account = serializer.save()
    logger.info(f"Account created: {account.username} ({account.role})")
    return Response({'message': 'user created successfully', 'user': AccountSerializer(account).data},
                    status=status.HTTP_201_CREATED)


@swagger_auto_schema(method='post', request_body=LoginSerializer, tags=['Auth'])
@api_view(['POST'])
@authentication_classes([])
def login(request):
    serializer = LoginSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'username and password required'}, status=status.HTTP_400_BAD_REQUEST)

    account = Account.objects.filter(username=serializer.validated_data['username']).first()
    if account is None:
        return Response({'error': 'user not found'}, status=status.HTTP_404_NOT_FOUND)
    if not account.check_password(serializer.validated_data['password']):
        return Response({'error': 'invalid credentials'}, status=status.HTTP_401_UNAUTHORIZED)

    token = issue_token(account.id, account.username, account.role)
    response = Response({'message': 'User logged in successfully', 'token': token}, status=status.HTTP_200_OK)
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.JWT_EXPIRY_HOURS * 60 * 60,
        httponly=True,
        secure=not settings.DEBUG,
        samesite='Lax',
    )
    return response


@swagger_auto_schema(method='post', tags=['Auth'])
@api_view(['POST'])
@authentication_classes([])
def verify_token(request):
    token = _token_from_request(request)
    if not token:
        return Response({'error': 'No token provided'}, status=status.HTTP_401_UNAUTHORIZED)

    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        return Response({'valid': False, 'error': 'Token expired'}, status=status.HTTP_401_UNAUTHORIZED)
    except jwt.InvalidTokenError:
        return Response({'valid': False, 'error': 'Invalid token'}, status=status.HTTP_401_UNAUTHORIZED)

    account = Account.objects.filter(id=payload.get('id')).first()
    if account is None:
        return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response({'valid': True, 'user': AccountSerializer(account).data}, status=status.HTTP_200_OK)


@swagger_auto_schema(method='post', tags=['Auth'])
@api_view(['POST'])
@authentication_classes([])
def logout(request):
    response = Response({'message': 'Logged out'}, status=status.HTTP_200_OK)
    response.delete_cookie(TOKEN_COOKIE)
    return response
