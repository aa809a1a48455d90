import os

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('tickets.urls')),
]

# Media in dev (o se forzato con SERVE_MEDIA=1)
if settings.DEBUG or os.getenv("SERVE_MEDIA") == "1":
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
