import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('phone_number', models.CharField(blank=True, default='', max_length=30)),
                ('codeforces_handle', models.CharField(max_length=100, unique=True)),
                ('current_rating', models.IntegerField(default=0)),
                ('max_rating', models.IntegerField(default=0)),
                ('last_sync_date', models.DateTimeField(blank=True, help_text='Null until the first sync.', null=True)),
                ('reminder_emails_sent', models.PositiveIntegerField(default=0)),
                ('disable_email_reminders', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Student',
                'verbose_name_plural': 'Students',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='ContestParticipation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('contest_id', models.IntegerField()),
                ('contest_name', models.CharField(max_length=300)),
                ('rank', models.IntegerField()),
                ('old_rating', models.IntegerField()),
                ('new_rating', models.IntegerField()),
                ('rating_change', models.IntegerField()),
                ('contest_time', models.DateTimeField(help_text='Rating update time reported by Codeforces.')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contests', to='tracker.student')),
            ],
            options={
                'verbose_name': 'Contest Participation',
                'verbose_name_plural': 'Contest Participations',
                'ordering': ['contest_time'],
            },
        ),
        migrations.CreateModel(
            name='Submission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('submission_id', models.BigIntegerField()),
                ('problem_id', models.CharField(help_text='Ex: 1980-A, or the problem name without a contest.', max_length=200)),
                ('problem_name', models.CharField(max_length=300)),
                ('problem_rating', models.IntegerField(default=0)),
                ('verdict', models.CharField(choices=[('OK', 'Accepted'), ('WRONG_ANSWER', 'Wrong answer'), ('TIME_LIMIT_EXCEEDED', 'Time limit exceeded'), ('OTHER', 'Other')], max_length=30)),
                ('raw_verdict', models.CharField(blank=True, default='', max_length=50)),
                ('submission_time', models.DateTimeField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submissions', to='tracker.student')),
            ],
            options={
                'verbose_name': 'Submission',
                'verbose_name_plural': 'Submissions',
                'ordering': ['-submission_time'],
            },
        ),
        migrations.AddIndex(
            model_name='contestparticipation',
            index=models.Index(fields=['student', 'contest_time'], name='contest_student_time_idx'),
        ),
        migrations.AddConstraint(
            model_name='contestparticipation',
            constraint=models.UniqueConstraint(fields=('student', 'contest_id'), name='tracker_contest_student_contest_uniq'),
        ),
        migrations.AddIndex(
            model_name='submission',
            index=models.Index(fields=['student', 'verdict', 'submission_time'], name='submission_student_verdict_idx'),
        ),
        migrations.AddIndex(
            model_name='submission',
            index=models.Index(fields=['submission_time'], name='submission_time_idx'),
        ),
        migrations.AddConstraint(
            model_name='submission',
            constraint=models.UniqueConstraint(fields=('student', 'submission_id'), name='tracker_submission_student_submission_uniq'),
        ),
    ]
