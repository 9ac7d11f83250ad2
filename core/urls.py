"""
Core App URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
)

from .views import (
    UserViewSet, ProfileView, SignupView, PartnerSignupView,
    CreateDriverView, CreatePartnerView, ResetPasswordView,
    CustomerDirectoryViewSet, SellerDirectoryViewSet, StaffViewSet,
)

router = DefaultRouter()
router.register(r'users', UserViewSet, basename='user')
router.register(r'admin/customers', CustomerDirectoryViewSet, basename='admin-customer')
router.register(r'admin/sellers', SellerDirectoryViewSet, basename='admin-seller')
router.register(r'admin/staff', StaffViewSet, basename='admin-staff')

urlpatterns = [
    # JWT Authentication
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Signup
    path('auth/signup/', SignupView.as_view(), name='signup'),
    path('auth/partner-signup/', PartnerSignupView.as_view(), name='partner-signup'),

    # Admin account operations
    path('auth/create-driver/', CreateDriverView.as_view(), name='create-driver'),
    path('auth/reset-password/', ResetPasswordView.as_view(), name='reset-password'),
    path('admin/create-partner/', CreatePartnerView.as_view(), name='create-partner'),

    # Profile settings
    path('profile/', ProfileView.as_view(), name='profile'),

    # Router URLs
    path('', include(router.urls)),
]
