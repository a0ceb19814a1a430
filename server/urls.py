"""Main URL mapping configuration file.

The library core is consumed through its logic layer; only the admin
site is routed here.
"""

from django.contrib import admin
from django.urls import path

admin.autodiscover()

urlpatterns = [
    path('admin/', admin.site.urls),
]
