from django.db import migrations


def populate_configuration(apps, schema_editor):
    Configuration = apps.get_model("configuration", "Configuration")

    initial_data = [
        {
            "key": "destination_ws_url",
            "data_type": "text",
            "value": "",
            "description": "Web service endpoint of the destination instance which receives restore requests, e.g. https://destination.example.com/api/request-restore",
        },
        {
            "key": "ws_token",
            "data_type": "text",
            "value": "",
            "description": "Service token sent to the destination instance with each restore request.",
        },
        {
            "key": "default_category",
            "data_type": "number",
            "value": "",
            "description": "Category used for restored courses when the requested category is missing or not set.",
        },
        {
            "key": "hidden_course",
            "data_type": "boolean",
            "value": "false",
            "description": "Hide restored courses from students.",
        },
        {
            "key": "successful_delete",
            "data_type": "boolean",
            "value": "false",
            "description": "Delete the backup file from storage once the course has been restored.",
        },
        {
            "key": "fail_restore_delete",
            "data_type": "boolean",
            "value": "false",
            "description": "Delete the backup file from storage when a restore fails. Failed restores are only retried while the file exists.",
        },
        {
            "key": "fail_backup_delete",
            "data_type": "boolean",
            "value": "false",
            "description": "Delete the backup file from storage when the restore request to the destination instance fails.",
        },
        {
            "key": "storage_type",
            "data_type": "text",
            "value": "shared_disk",
            "description": "Storage used to transfer backup files. Supported values: shared_disk.",
        },
        {
            "key": "save_to",
            "data_type": "text",
            "value": "",
            "description": "Shared disk storage: directory backup files are copied to.",
        },
        {
            "key": "restore_from",
            "data_type": "text",
            "value": "",
            "description": "Shared disk storage: directory backup files are restored from.",
        },
        {
            "key": "backup_batch_limit",
            "data_type": "number",
            "value": "20",
            "description": "Maximum number of backup jobs dispatched per scheduler run.",
        },
        {
            "key": "restore_batch_limit",
            "data_type": "number",
            "value": "20",
            "description": "Maximum number of restore jobs dispatched per scheduler run.",
        },
    ]

    for entry in initial_data:
        Configuration.objects.update_or_create(key=entry["key"], defaults=entry)


def revert_populate_configuration(apps, schema_editor):
    # Values may have been edited by operators since, so they are left alone
    pass


class Migration(migrations.Migration):

    dependencies = [
        ("configuration", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(populate_configuration, revert_populate_configuration),
    ]
