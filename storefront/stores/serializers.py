from rest_framework import serializers

from storefront.core.models import User
from .models import Store


class StoreSerializer(serializers.ModelSerializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    isActive = serializers.BooleanField(source='is_active', required=False)
    adminCount = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    deletedAt = serializers.DateTimeField(source='deleted_at', read_only=True)

    class Meta:
        model = Store
        fields = ['id', 'name', 'address', 'city', 'province', 'latitude', 'longitude', 'isActive',
                  'adminCount', 'createdAt', 'updatedAt', 'deletedAt']

    def get_adminCount(self, obj):
        return obj.admins.filter(role=User.ROLE_STORE_ADMIN, is_active=True).count()


class StoreAdminSerializer(serializers.ModelSerializer):
    fullName = serializers.CharField(source='full_name')
    storeId = serializers.IntegerField(source='store_id')

    class Meta:
        model = User
        fields = ['id', 'email', 'fullName', 'role', 'storeId']


class AssignAdminSerializer(serializers.Serializer):
    storeId = serializers.PrimaryKeyRelatedField(queryset=Store.objects.alive())
    userId = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))

    def validate_userId(self, user):
        if user.is_super_admin:
            raise serializers.ValidationError('Super admins cannot be assigned to a store')
        return user
