import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='FileRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bucket_name', models.CharField(help_text='Blob store bucket holding the object', max_length=63)),
                ('file_name', models.CharField(db_index=True, help_text='Original client-supplied file name (not unique)', max_length=255)),
                ('object_key', models.CharField(help_text='Key of the encrypted object in the blob store', max_length=1024, unique=True)),
                ('file_size', models.BigIntegerField(blank=True, help_text='Plaintext size in bytes', null=True)),
                ('uploaded_by', models.CharField(blank=True, default='', help_text='Login of the uploader', max_length=150)),
                ('uploaded_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'verbose_name': 'File record',
                'verbose_name_plural': 'File records',
                'ordering': ['-uploaded_at', '-id'],
                'indexes': [models.Index(fields=['file_name', '-uploaded_at'], name='files_name_recent_idx')],
            },
        ),
    ]
