from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/library/', include('apps.library.urls', namespace='library')),
    path('api-auth/', include('rest_framework.urls')),
]


# ============================================
# ERROR HANDLERS
# ============================================

handler404 = 'apps.core.views.custom_page_not_found_view'
handler500 = 'apps.core.views.custom_error_view'
handler403 = 'apps.core.views.custom_permission_denied_view'
handler400 = 'apps.core.views.custom_bad_request_view'
