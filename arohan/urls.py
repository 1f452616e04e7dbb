"""
URL configuration for arohan project.

Everything the office client talks to lives under /api/; the Django admin
sits at /django-admin/ for back-office fixes.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.conf.urls.static import static

from education import api_views

urlpatterns = [
    path('django-admin/', admin.site.urls),

    path('api/health/', api_views.api_health, name='api_health'),
    path('api/fees/', include('accounts.fee_api_urls')),
    path('api/finance/', include('accounts.finance_api_urls')),
    path('api/', include('education.api_urls')),

    # Unknown API routes answer with JSON instead of the HTML 404 page
    re_path(r'^api/.*$', api_views.api_route_not_found, name='api_route_not_found'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
