from django.contrib.auth.decorators import login_required
from django.http import Http404, JsonResponse

from .exceptions import StudentNotFound
from .services import store
from .services.analytics import compute_metrics, contest_history, parse_window
from .tasks import sync_student as sync_student_task


def _student_payload(student):
    return {
        "id": student.id,
        "name": student.name,
        "email": student.email,
        "phoneNumber": student.phone_number,
        "codeforcesHandle": student.codeforces_handle,
        "currentRating": student.current_rating,
        "maxRating": student.max_rating,
        "lastSyncDate": student.last_sync_date.isoformat() if student.last_sync_date else None,
        "reminderEmailsSent": student.reminder_emails_sent,
        "disableEmailReminders": student.disable_email_reminders,
    }


def _get_student_or_404(student_id):
    try:
        return store.get_student(student_id)
    except StudentNotFound:
        raise Http404("Student not found.")


@login_required
def student_profile(request, student_id):
    return JsonResponse(_student_payload(_get_student_or_404(student_id)))


@login_required
def sync_codeforces(request, student_id):
    if request.method != "POST":
        return JsonResponse({"message": "Method not allowed."}, status=405)

    student = _get_student_or_404(student_id)
    # Sync and inactivity check run on a worker; poll the profile for lastSyncDate.
    task = sync_student_task.delay(student.id)
    return JsonResponse(
        {
            "message": f"Sync queued for {student.codeforces_handle}.",
            "taskId": task.id,
            "student": _student_payload(student),
        },
        status=202,
    )


@login_required
def student_contest_history(request, student_id):
    window = parse_window(request.GET.get("filter"))
    try:
        contests = contest_history(student_id, window)
    except StudentNotFound:
        raise Http404("Student not found.")

    return JsonResponse(
        [
            {
                "contestId": c.contest_id,
                "contestName": c.contest_name,
                "rank": c.rank,
                "oldRating": c.old_rating,
                "newRating": c.new_rating,
                "ratingChange": c.rating_change,
                "contestTime": c.contest_time.isoformat(),
            }
            for c in contests
        ],
        safe=False,
    )


@login_required
def student_problem_data(request, student_id):
    window = parse_window(request.GET.get("filter"))
    try:
        metrics = compute_metrics(student_id, window)
    except StudentNotFound:
        raise Http404("Student not found.")
    return JsonResponse(metrics.as_dict())


@login_required
def reminder_status(request, student_id):
    student = _get_student_or_404(student_id)
    return JsonResponse({
        "reminderEmailsSent": student.reminder_emails_sent,
        "disableEmailReminders": student.disable_email_reminders,
    })
