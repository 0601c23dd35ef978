"""URL routes for files app."""

from django.urls import path

from server.apps.files import views

app_name = 'files'

urlpatterns = [
    path('upload', views.upload_file, name='upload'),
    path(
        'download/bytes/<str:object_key>',
        views.download_file_bytes,
        name='download-bytes',
    ),
    path(
        'download/file/<str:object_key>',
        views.download_file,
        name='download-file',
    ),
    path('list', views.list_files, name='list'),
    path('info/<str:object_key>', views.file_info, name='info'),
    path('delete/<str:object_key>', views.delete_file, name='delete'),
]
