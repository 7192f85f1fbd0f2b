import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CollectionEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('teacher_to_section', 'Class teacher to section head'), ('section_to_clerk', 'Section head to clerk'), ('section_collected', 'Section collected amount')], max_length=20)),
                ('source', models.CharField(max_length=20)),
                ('target', models.CharField(blank=True, max_length=150)),
                ('section', models.CharField(choices=[('lp', 'LP (Lower Primary)'), ('up', 'UP (Upper Primary)'), ('hs', 'HS (High School)'), ('hss', 'HSS (Higher Secondary)')], max_length=3)),
                ('fee_category', models.CharField(choices=[('bus_fee', 'Bus Fee'), ('development_fund', 'Development Fund'), ('others', 'Others')], default='others', max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('collection_date', models.DateField(default=django.utils.timezone.localdate)),
                ('remarks', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='collection_entries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'collection entries',
                'ordering': ['-collection_date', '-id'],
                'indexes': [
                    models.Index(fields=['kind', 'section'], name='collection_kind_section_idx'),
                    models.Index(fields=['kind', 'source'], name='collection_kind_source_idx'),
                ],
            },
        ),
    ]
