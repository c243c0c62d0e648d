from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LedgerVersion",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(help_text="Ledger key (unit or delivery id).", max_length=255)),
                ("version", models.CharField(help_text="Transaction id that wrote this version.", max_length=64)),
                ("timestamp", models.CharField(help_text="Ledger timestamp of the writing transaction.", max_length=32)),
                ("deleted", models.BooleanField(default=False, help_text="True if this version is a tombstone.")),
                ("value", models.BinaryField(default=b"", help_text="Canonical bytes of the record. Empty for tombstones.")),
            ],
            options={
                "db_table": "custody_ledger_version",
                "ordering": ["id"],
            },
        ),
        migrations.AddIndex(
            model_name="ledgerversion",
            index=models.Index(fields=["key", "id"], name="idx_ledger_key_id"),
        ),
        migrations.AddConstraint(
            model_name="ledgerversion",
            constraint=models.UniqueConstraint(fields=("key", "version"), name="uq_ledger_key_version"),
        ),
    ]
