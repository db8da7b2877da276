"""Cloud Storage accessors for uploaded PDFs."""


def upload_pdf(bucket, path, data, content_type='application/pdf'):
    blob = bucket.blob(path)
    blob.upload_from_string(data, content_type=content_type)
    blob.make_public()
    return blob.public_url


def delete_object(bucket, path):
    blob = bucket.blob(path)
    if not blob.exists():
        return False
    blob.delete()
    return True
