from django.db import connection
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    """Liveness probe used by clients to show the backend as online."""
    return Response({'status': 'online', 'database': connection.vendor})
