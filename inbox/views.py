import base64
import binascii
import json
import logging

from django.apps import apps
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes
from rest_framework.response import Response

logger = logging.getLogger(__name__)


def decode_push_data(data):
    """Decode the base64 JSON payload of a Pub/Sub push message."""
    if not data:
        return {}
    if not isinstance(data, str):
        raise ValueError(f"Push data must be a base64 string, got {type(data).__name__}")
    decoded = base64.b64decode(data, validate=True).decode('utf-8')
    payload = json.loads(decoded)
    return payload if isinstance(payload, dict) else {}


@swagger_auto_schema(method='post', responses={200: "Notification accepted", 400: "Malformed push body"},
                     tags=['Mailbox'])
@api_view(['POST'])
@authentication_classes([])
def gmail_push(request):
    """
    Pub/Sub push endpoint for Gmail watch notifications. Acknowledges at
    once and lets the background trigger poll the mailbox.
    """
    body = request.data if isinstance(request.data, dict) else None
    message = body.get('message') if body else None
    if not isinstance(message, dict):
        logger.warning("Invalid Pub/Sub push received")
        return Response({'error': 'Bad Request'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        payload = decode_push_data(message.get('data'))
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Pub/Sub push with undecodable data: {e}")
        return Response({'error': 'Bad Request'}, status=status.HTTP_400_BAD_REQUEST)

    if payload.get('historyId'):
        logger.info(f"Gmail push for {payload.get('emailAddress')} historyId={payload['historyId']}")

    apps.get_app_config('inbox').trigger.notify()
    return Response({'message': 'OK'}, status=status.HTTP_200_OK)
