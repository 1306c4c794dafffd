from django.db import models


class Student(models.Model):
    name = models.CharField(max_length=200)
    email = models.EmailField(unique=True)
    phone_number = models.CharField(max_length=30, blank=True, default='')
    codeforces_handle = models.CharField(max_length=100, unique=True)

    # Refreshed on every sync
    current_rating = models.IntegerField(default=0)
    max_rating = models.IntegerField(default=0)
    last_sync_date = models.DateTimeField(null=True, blank=True, help_text="Null until the first sync.")

    # Inactivity reminders
    reminder_emails_sent = models.PositiveIntegerField(default=0)
    disable_email_reminders = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Student"
        verbose_name_plural = "Students"

    def __str__(self):
        return f"{self.name} ({self.codeforces_handle})"


class ContestParticipation(models.Model):
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='contests')
    contest_id = models.IntegerField()
    contest_name = models.CharField(max_length=300)
    rank = models.IntegerField()
    old_rating = models.IntegerField()
    new_rating = models.IntegerField()
    rating_change = models.IntegerField()
    contest_time = models.DateTimeField(help_text="Rating update time reported by Codeforces.")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['contest_time']
        indexes = [
            models.Index(fields=['student', 'contest_time'], name='contest_student_time_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'contest_id'],
                name='tracker_contest_student_contest_uniq',
            ),
        ]
        verbose_name = "Contest Participation"
        verbose_name_plural = "Contest Participations"

    def save(self, *args, **kwargs):
        self.rating_change = self.new_rating - self.old_rating
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.student.codeforces_handle} - {self.contest_name} ({self.rating_change:+d})"


class Verdict(models.TextChoices):
    ACCEPTED = 'OK', 'Accepted'
    WRONG_ANSWER = 'WRONG_ANSWER', 'Wrong answer'
    TIME_LIMIT_EXCEEDED = 'TIME_LIMIT_EXCEEDED', 'Time limit exceeded'
    OTHER = 'OTHER', 'Other'

    @classmethod
    def from_codeforces(cls, raw):
        if raw in cls.values:
            return cls(raw)
        return cls.OTHER


class Submission(models.Model):
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='submissions')
    submission_id = models.BigIntegerField()
    problem_id = models.CharField(max_length=200, help_text="Ex: 1980-A, or the problem name without a contest.")
    problem_name = models.CharField(max_length=300)
    problem_rating = models.IntegerField(default=0)
    verdict = models.CharField(max_length=30, choices=Verdict.choices)
    raw_verdict = models.CharField(max_length=50, blank=True, default='')
    submission_time = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-submission_time']
        indexes = [
            models.Index(fields=['student', 'verdict', 'submission_time'], name='submission_student_verdict_idx'),
            models.Index(fields=['submission_time'], name='submission_time_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'submission_id'],
                name='tracker_submission_student_submission_uniq',
            ),
        ]
        verbose_name = "Submission"
        verbose_name_plural = "Submissions"

    @property
    def is_accepted(self):
        return self.verdict == Verdict.ACCEPTED

    def __str__(self):
        return f"{self.student.codeforces_handle} - {self.problem_id} ({self.verdict})"
