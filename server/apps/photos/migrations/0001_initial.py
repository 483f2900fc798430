from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='StoredObject',
            fields=[
                ('id', models.CharField(editable=False, help_text='24 character hex object identifier', max_length=24, primary_key=True, serialize=False)),
                ('content_type', models.CharField(db_index=True, max_length=255)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('length', models.BigIntegerField(help_text='Payload size in bytes')),
                ('chunk_size', models.PositiveIntegerField(help_text='Maximum size of each chunk in bytes')),
                ('checksum_sha256', models.CharField(help_text='SHA256 hash for integrity verification', max_length=64)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('modified_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Stored object',
                'verbose_name_plural': 'Stored objects',
                'ordering': ['uploaded_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='PlaceLocation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('place_id', models.CharField(max_length=64, unique=True)),
                ('latitude', models.FloatField()),
                ('longitude', models.FloatField()),
                ('indexed_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Place location',
                'verbose_name_plural': 'Place locations',
                'ordering': ['place_id'],
                'indexes': [models.Index(fields=['latitude', 'longitude'], name='places_lat_lng_idx')],
            },
        ),
        migrations.CreateModel(
            name='Chunk',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sequence', models.PositiveIntegerField()),
                ('storage_key', models.CharField(help_text='Blob name in storage: chunks/{object_id}/{sequence}', max_length=255, unique=True)),
                ('size_bytes', models.PositiveIntegerField()),
                ('parent', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='chunks', to='photos.storedobject')),
            ],
            options={
                'verbose_name': 'Chunk',
                'verbose_name_plural': 'Chunks',
                'ordering': ['parent', 'sequence'],
                'constraints': [models.UniqueConstraint(fields=('parent', 'sequence'), name='chunks_parent_sequence_unique')],
            },
        ),
    ]
