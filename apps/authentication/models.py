from django.contrib.auth.models import AbstractUser
from django.db import models

class User(AbstractUser):
    """Dashboard user; ``tenant_id`` ties the user to exactly one merchant."""

    ROLE_CHOICES = [
        ('user', 'User'),
        ('admin', 'Admin'),
        ('super_admin', 'Super admin'),
    ]

    tenant_id = models.IntegerField(db_index=True)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=50, choices=ROLE_CHOICES, default='user')
    
    # Fix reverse accessor conflicts
    groups = models.ManyToManyField(
        'auth.Group',
        related_name='custom_user_set',
        blank=True
    )
    user_permissions = models.ManyToManyField(
        'auth.Permission',
        related_name='custom_user_set',
        blank=True
    )
    
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username', 'tenant_id']

    @property
    def is_tenant_admin(self):
        return self.role in ('admin', 'super_admin')
