from django.contrib import admin, messages

from .models import ContestParticipation, Student, Submission
from .tasks import sync_student

admin.site.site_header = "Student Progress Administration"
admin.site.site_title = "Student Progress Admin"
admin.site.index_title = "Codeforces progress"


class AppendOnlyAdmin(admin.ModelAdmin):
    """
    Synced rows are written by the sync engine only.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = (
        'name',
        'email',
        'codeforces_handle',
        'current_rating',
        'max_rating',
        'last_sync_date',
        'reminder_emails_sent',
        'disable_email_reminders',
    )
    search_fields = ('name', 'email', 'codeforces_handle')
    list_filter = ('disable_email_reminders',)
    readonly_fields = ('current_rating', 'max_rating', 'last_sync_date', 'reminder_emails_sent', 'created_at', 'updated_at')
    actions = ['queue_sync']

    @admin.action(description="Sync selected students from Codeforces")
    def queue_sync(self, request, queryset):
        student_ids = list(queryset.values_list('id', flat=True))
        for student_id in student_ids:
            sync_student.delay(student_id)
        self.message_user(request, f"Queued sync for {len(student_ids)} student(s).", level=messages.SUCCESS)


@admin.register(ContestParticipation)
class ContestParticipationAdmin(AppendOnlyAdmin):
    list_display = ('student', 'contest_id', 'contest_name', 'rank', 'old_rating', 'new_rating', 'rating_change', 'contest_time')
    search_fields = ('student__name', 'student__codeforces_handle', 'contest_name')
    ordering = ('-contest_time',)


@admin.register(Submission)
class SubmissionAdmin(AppendOnlyAdmin):
    list_display = ('student', 'submission_id', 'problem_id', 'problem_rating', 'verdict', 'submission_time')
    list_filter = ('verdict', 'submission_time')
    search_fields = ('student__name', 'student__codeforces_handle', 'problem_id', 'problem_name')
    ordering = ('-submission_time',)
