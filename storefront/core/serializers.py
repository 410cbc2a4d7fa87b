from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import User, UserAddress, AuditLog


class UserSerializer(serializers.ModelSerializer):
    fullName = serializers.CharField(source='full_name', read_only=True)
    isVerified = serializers.BooleanField(source='is_verified', read_only=True)
    referralCode = serializers.CharField(source='referral_code', read_only=True)
    profilePhoto = serializers.CharField(source='profile_photo', read_only=True)
    storeId = serializers.IntegerField(source='store_id', read_only=True)
    storeName = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'fullName', 'role', 'isVerified', 'referralCode', 'profilePhoto',
                  'storeId', 'storeName', 'createdAt']

    def get_storeName(self, obj):
        return obj.store.name if obj.store_id else None


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    fullName = serializers.CharField(max_length=200)
    referralCode = serializers.CharField(required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Email is already registered')
        return value

    def validate_referralCode(self, value):
        if value and not User.objects.filter(referral_code=value).exists():
            raise serializers.ValidationError('Referral code not found')
        return value

    def create(self, validated_data):
        referrer = None
        code = validated_data.get('referralCode')
        if code:
            referrer = User.objects.get(referral_code=code)
        user = User(
            email=validated_data['email'],
            username=validated_data['email'],
            full_name=validated_data['fullName'],
            role=User.ROLE_USER,
            referred_by=referrer,
        )
        user.set_password(validated_data['password'])
        user.save()
        user.ensure_referral_code()
        return user


class StorefrontTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Login with email/password; token carries role and store scope"""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['role'] = user.role
        token['store_id'] = user.store_id
        return token


class ProfileUpdateSerializer(serializers.Serializer):
    fullName = serializers.CharField(max_length=200, required=False)
    email = serializers.EmailField(required=False)
    profilePhoto = serializers.URLField(required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.lower()
        user = self.context['request'].user
        if User.objects.filter(email__iexact=value).exclude(pk=user.pk).exists():
            raise serializers.ValidationError('Email is already in use')
        return value


class SetPasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(validators=[validate_password])


class ResetPasswordSerializer(serializers.Serializer):
    token = serializers.CharField()
    password = serializers.CharField(validators=[validate_password])


class UserAddressSerializer(serializers.ModelSerializer):
    fullAddress = serializers.CharField(source='full_address')
    recipientName = serializers.CharField(source='recipient_name')
    recipientPhone = serializers.CharField(source='recipient_phone', required=False, allow_blank=True)
    isMain = serializers.BooleanField(source='is_main', required=False)
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = UserAddress
        fields = ['id', 'label', 'fullAddress', 'latitude', 'longitude', 'recipientName',
                  'recipientPhone', 'isMain', 'createdAt']


class AdminUserSerializer(serializers.Serializer):
    """Create/update payload for accounts managed by a super admin"""
    email = serializers.EmailField(required=False)
    password = serializers.CharField(required=False, validators=[validate_password])
    fullName = serializers.CharField(max_length=200, required=False)
    role = serializers.ChoiceField(choices=[c[0] for c in User.ROLE_CHOICES], required=False)
    storeId = serializers.IntegerField(required=False, allow_null=True)

    def validate_email(self, value):
        value = value.lower()
        qs = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('Email is already registered')
        return value

    def validate_storeId(self, value):
        from storefront.stores.models import Store
        if value is not None and not Store.objects.alive().filter(pk=value).exists():
            raise serializers.ValidationError('Store not found')
        return value

    def validate(self, attrs):
        if self.instance is None:
            for field in ('email', 'password', 'fullName'):
                if not attrs.get(field):
                    raise serializers.ValidationError({field: 'This field is required.'})
        return attrs

    def create(self, validated_data):
        user = User(
            email=validated_data['email'],
            username=validated_data['email'],
            full_name=validated_data['fullName'],
            role=validated_data.get('role', User.ROLE_STORE_ADMIN),
            store_id=validated_data.get('storeId'),
            is_verified=True,
        )
        user.set_password(validated_data['password'])
        user.save()
        user.ensure_referral_code()
        return user

    def update(self, instance, validated_data):
        if 'email' in validated_data:
            instance.email = validated_data['email']
            instance.username = validated_data['email']
        if 'fullName' in validated_data:
            instance.full_name = validated_data['fullName']
        if 'role' in validated_data:
            instance.role = validated_data['role']
        if 'storeId' in validated_data:
            instance.store_id = validated_data['storeId']
        if instance.role == User.ROLE_USER:
            instance.store = None
        if validated_data.get('password'):
            instance.set_password(validated_data['password'])
        instance.save()
        return instance


class AuditLogSerializer(serializers.ModelSerializer):
    userEmail = serializers.SerializerMethodField()
    modelName = serializers.CharField(source='model_name')
    objectId = serializers.CharField(source='object_id')
    objectName = serializers.CharField(source='object_name')
    createdAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = AuditLog
        fields = ['id', 'userEmail', 'action', 'modelName', 'objectId', 'objectName', 'changes', 'createdAt']

    def get_userEmail(self, obj):
        return obj.user.email if obj.user_id else None
