from django.urls import path, include
from rest_framework.routers import DefaultRouter

from . import api_views

app_name = 'library'

router = DefaultRouter()
router.register('books', api_views.BookViewSet, basename='book')
router.register('issues', api_views.BookIssueViewSet, basename='issue')

urlpatterns = [
    path('stats/', api_views.library_stats, name='stats'),
    path('', include(router.urls)),
]
