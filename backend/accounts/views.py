import logging

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .serializers import DuplicateAccountError, RegisterSerializer, LoginSerializer, UserSerializer

logger = logging.getLogger(__name__)


def token_pair(user):
    refresh = RefreshToken.for_user(user)
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }


class RegisterView(APIView):
    """
    Register a new user (rider or driver)

    POST Body:
    {
        "username": "john_doe",
        "email": "john@example.com",
        "password": "password123",
        "role": "rider",  // or "driver"
        "phone_number": "+1234567890",
        // required for drivers:
        "vehicle": {"make": "Toyota", "model": "Etios", "year": 2020,
                    "plate": "KA01AB1234", "color": "White",
                    "categories": ["economy", "comfort"]},
        "license_number": "DL-0420110012345"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            user = serializer.save()
        except DuplicateAccountError as exc:
            return Response(
                {'success': False, 'error': 'already_in_use', 'field': exc.field, 'message': str(exc)},
                status=status.HTTP_409_CONFLICT,
            )

        logger.info("Registered %s account %s", user.role, user.pk)
        return Response({
            'message': 'User registered successfully',
            'user': UserSerializer(user).data,
            'tokens': token_pair(user),
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    Login with username and password to get JWT tokens

    POST Body:
    {
        "username": "john_doe",
        "password": "password123"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # Get the user object from the validated data
        user = serializer.validated_data

        return Response({
            "message": "Login successful",
            "user": UserSerializer(user).data,
            "tokens": token_pair(user),
        }, status=status.HTTP_200_OK)


class RefreshTokenView(APIView):
    """
    Refresh JWT access token

    POST Body:
    {
        "refresh": "your_refresh_token"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        refresh_token = request.data.get('refresh')

        if not refresh_token:
            return Response(
                {'error': 'Refresh token is required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            refresh = RefreshToken(refresh_token)
        except TokenError:
            return Response(
                {'error': 'Invalid refresh token'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        return Response({
            'access': str(refresh.access_token)
        })


class MeView(APIView):
    """Resolved account for the bearer token."""
    permission_classes = (IsAuthenticated,)

    def get(self, request):
        data = UserSerializer(request.user).data
        if request.user.is_driver and hasattr(request.user, 'driver_profile'):
            from drivers.serializers import DriverProfileSerializer
            data['driver_profile'] = DriverProfileSerializer(request.user.driver_profile).data
            # Already nested one level up
            data['driver_profile'].pop('user', None)
        return Response(data)
