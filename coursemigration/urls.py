from django.contrib import admin
from django.urls import path

from migrator.api import api as migrator_api

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", migrator_api.urls),
]
