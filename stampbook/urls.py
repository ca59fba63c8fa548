from django.urls import path

from . import views

app_name = "stampbook"

urlpatterns = [
    path("add-stamp/", views.add_stamp, name="add-stamp"),
    path("remove-stamp/", views.remove_stamp, name="remove-stamp"),
    path("card/<str:member_code>/", views.card, name="card"),
]
