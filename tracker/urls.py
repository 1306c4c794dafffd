from django.urls import path
from . import views

urlpatterns = [
    path('<int:student_id>/', views.student_profile, name='student_profile'),
    path('<int:student_id>/sync/', views.sync_codeforces, name='student_sync'),
    path('<int:student_id>/contest-history/', views.student_contest_history, name='student_contest_history'),
    path('<int:student_id>/problem-data/', views.student_problem_data, name='student_problem_data'),
    path('<int:student_id>/reminder-status/', views.reminder_status, name='student_reminder_status'),
]
