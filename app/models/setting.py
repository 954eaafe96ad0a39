from tortoise import fields, models


class AppSetting(models.Model):
    """Global key/value switches toggled by the administrator (e.g. test mode)."""
    key = fields.CharField(max_length=64, primary_key=True)
    value = fields.JSONField()
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "app_settings"
