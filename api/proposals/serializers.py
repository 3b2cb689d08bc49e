from rest_framework import serializers

from .models import Proposal


class ProposalSerializer(serializers.ModelSerializer):
    author = serializers.ReadOnlyField(source="author.id")
    # Lightweight section listing so export UIs can show what will be rendered.
    sections = serializers.SerializerMethodField()

    class Meta:
        model = Proposal
        fields = [
            "id",
            "author",
            "title",
            "client_company",
            "content",
            "downloads",
            "last_edited",
            "created_at",
            "sections",
        ]
        read_only_fields = ["downloads", "last_edited", "created_at"]

    def validate_content(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("content must be an object")
        sections = value.get("sections", {})
        if sections is not None and not isinstance(sections, dict):
            raise serializers.ValidationError("content.sections must be an object keyed by section id")
        return value

    def get_sections(self, obj: Proposal):
        return [
            {
                "key": key,
                "title": section.get("title") or key,
                "visuals": len(section.get("visualizations") or []) + len(section.get("diagrams") or []),
            }
            for key, section in obj.section_items()
        ]
