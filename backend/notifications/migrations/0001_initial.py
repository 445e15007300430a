# Generated migration for initial notifications app setup

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(
                    choices=[
                        ('comment', 'Comment'),
                        ('follow', 'Follow'),
                        ('mention', 'Mention'),
                        ('like', 'Like'),
                        ('share', 'Share'),
                    ],
                    max_length=20,
                )),
                ('message', models.TextField(blank=True)),
                ('item_type', models.CharField(blank=True, max_length=40)),
                ('item_id', models.BigIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications_from', to='accounts.profile')),
                ('profile', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='accounts.profile')),
            ],
            options={
                'db_table': 'notifications',
                'ordering': ['-id'],
                'indexes': [
                    models.Index(fields=['profile', 'id'], name='notif_profile_id_idx'),
                    models.Index(fields=['actor', 'created_at'], name='notif_actor_created_idx'),
                ],
            },
        ),
    ]
